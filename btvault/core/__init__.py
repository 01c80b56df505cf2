"""Result document models, exceptions and time helpers shared by btvault."""
