"""
Disaster Monitor & V2V Messaging API

This package provides:
- Hazard feed aggregation (USGS earthquakes, tsunamis, volcanoes; OpenWeatherMap)
- Disaster analytics and placeholder predictions
- Vehicle registration, nearby search and V2V messaging
- Emergency broadcast fan-out
- AI-assisted chat, disaster analysis and message enhancement
"""

__version__ = "1.0.0"
