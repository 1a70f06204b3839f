"""
Chat app.

Fan/creator conversations and paid messages.
"""
