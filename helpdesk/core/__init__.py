"""Configuration, logging, errors and credential helpers."""
