"""Core types shared by resource declarations and the runtime."""
