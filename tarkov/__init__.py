"""tarkov.dev catalog models and client."""
