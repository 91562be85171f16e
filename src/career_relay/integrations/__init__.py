# src/career_relay/integrations/__init__.py
