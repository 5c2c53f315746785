"""Audio capture, playback and pitch detection.

``devices`` needs PortAudio and ``aubio_detector`` needs aubio; import them
directly when required.
"""
