"""TrackDrop - publish songs from chat to video and audio platforms"""

__version__ = "0.3.0"
