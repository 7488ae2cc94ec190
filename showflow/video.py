import logging

from aiortc import RTCPeerConnection
from aiortc.contrib.media import MediaRelay

from showflow.sources import Source

logger = logging.getLogger(__name__)

# One relay for the whole process: a capture track can only be read by one
# consumer, the relay fans it out to preview, program and output pages
_relay = MediaRelay()


async def create_peer_connection(source: Source, audio: bool = False) -> RTCPeerConnection:
    """
    Create RTCPeerConnection carrying relayed tracks of ``source``.

    Audio is only attached when asked for (the output page); monitors stay muted.
    """
    pc = RTCPeerConnection()

    pc.addTrack(_relay.subscribe(source.handle.video))
    if audio and source.handle.audio is not None:
        pc.addTrack(_relay.subscribe(source.handle.audio))

    logger.info("Created peer connection for source %s (audio=%s)", source.id, audio)
    return pc
