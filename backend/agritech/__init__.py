"""
AgriTech Weather Reports Backend
================================

Backend API that turns EcoWitt weather station data and OpenWeather
forecasts into device and group reports.

HOW IT'S ORGANIZED:
------------------
- config.py  = Settings from the environment / .env
- database/  = Tables and CRUD for devices, groups and saved reports
- models/    = Data structures (requests, responses, the report itself)
- services/  = Workers (talk to EcoWitt and OpenWeather, build reports)
- routers/   = API endpoints (the doors into our app)
- main.py    = Puts it all together and starts the server

Author: AgriTech Backend Team
"""
