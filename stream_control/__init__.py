"""
Stream Control Center: lights, HDMI switch, OBS capture and chat overlay glue.
"""
