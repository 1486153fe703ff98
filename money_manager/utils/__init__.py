"""Small pure helpers shared across actions."""
