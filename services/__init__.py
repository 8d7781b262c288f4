"""
Network services used by the blueprint tool.
"""
