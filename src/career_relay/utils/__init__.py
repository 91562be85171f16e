# src/career_relay/utils/__init__.py
