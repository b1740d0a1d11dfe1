"""Outbound clients: captions, summaries, PubSubHubbub and email."""
