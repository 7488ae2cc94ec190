from typing import Literal

from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Настройки веб-сервера"""
    host: str = Field("0.0.0.0", description="Адрес для привязки сервера")
    port: int = Field(8000, ge=1, le=65535, description="Порт сервера")
    reload: bool = Field(False, description="Auto-reload при изменении кода (для разработки)")
    public_url: str = Field(
        "http://localhost:8000",
        description="Базовый URL, по которому браузер открывает страницы (для окна вывода)",
    )


class CaptureTargetConfig(BaseModel):
    """Источник захвата, предлагаемый оператору в списке выбора"""
    name: str = Field(..., description="Подпись источника в галерее")
    device: str = Field(..., description="Устройство/экран для ffmpeg (например ':0.0' или 'desktop')")


class CaptureConfig(BaseModel):
    """Настройки захвата экрана"""
    framerate: int = Field(30, ge=1, le=60, description="Частота кадров захвата")
    video_size: str | None = Field(None, description="Размер области захвата, например '1920x1080'")

    # Ограничения захвата
    cursor: bool = Field(False, description="Рисовать курсор в захвате")
    audio: bool = Field(True, description="Захватывать звук вместе с видео")
    audio_device: str | None = Field(None, description="Устройство звука (например 'default')")
    audio_format: str | None = Field(None, description="Формат ffmpeg для звука (например 'pulse')")

    display: str | None = Field(None, description="X11 дисплей, если не задан DISPLAY")
    targets: list[CaptureTargetConfig] = Field(
        default_factory=list, description="Готовые источники для списка выбора"
    )


class OutputConfig(BaseModel):
    """Настройки окна вывода (проектора)"""
    route: str = Field("output", description="Фрагмент URL, включающий режим вывода")
    launcher: Literal["browser", "manual"] = Field(
        "browser", description="Как открывать окно вывода: браузером или вручную по ссылке"
    )
    poll_interval_s: float = Field(1.0, gt=0.0, le=10.0, description="Период проверки живости окна")
    attach_timeout_s: float = Field(15.0, gt=0.0, description="Сколько ждать подключения страницы вывода")
    heartbeat_timeout_s: float = Field(5.0, gt=0.0, description="Таймаут heartbeat от страницы вывода")
    watermark: str = Field("SHOWFLOW FREE", description="Водяной знак бесплатной версии")


class StandbyConfig(BaseModel):
    """Настройки заставки"""
    encode_format: Literal[".png", ".jpg"] = Field(".png", description="Формат кодирования для передачи")


class Config(BaseModel):
    """Главная конфигурация приложения"""
    server: ServerConfig = ServerConfig()
    capture: CaptureConfig = CaptureConfig()
    output: OutputConfig = OutputConfig()
    standby: StandbyConfig = StandbyConfig()


# Глобальный экземпляр конфигурации
config = Config()
