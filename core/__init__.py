"""Core package - shared configuration."""
