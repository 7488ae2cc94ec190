import logging

from .bus import EventBus

# Configure logging for the showflow package
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:     %(name)s - %(message)s",
)

logging.getLogger("showflow").setLevel(logging.INFO)

event_bus = EventBus()
