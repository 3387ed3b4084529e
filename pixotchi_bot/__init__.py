"""Pixotchi activity and SEED burn report bot."""
