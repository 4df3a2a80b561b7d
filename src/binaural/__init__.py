# Binaural renderer: streamed binaural-beat sessions rendered with ffmpeg
# Package: binaural

__version__ = "1.0.0"
__description__ = "HTTP service rendering binaural-beat WAV sessions via ffmpeg"

# Module structure:
#   - binaural.session  : Parameter resolution, duration, naming
#   - binaural.render   : Signal graph construction & ffmpeg orchestration
#   - binaural.analyze  : Offline beat verification of rendered files
#   - binaural.config   : Configuration management
#   - binaural.server   : FastAPI application
