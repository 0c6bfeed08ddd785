"""
Backend of the veterinary clinic management app.

Layout:
- config.py      : settings read from the environment / .env
- db.py          : SQLAlchemy engine and sessions
- models.py      : ORM models and enums
- auth_*.py      : users, passwords, JWT
- validation.py  : field rules (names, phones, ZIP codes, passwords)
- scheduling.py  : slot grid, availability, calendar heat levels
- services/      : domain logic (appointments, pets, billing, clinical, ...)
- routes/        : FastAPI routers
- api_main.py    : FastAPI application
- cli.py         : operator / cron commands
- seed.py        : initial data (services, products, staff)
"""
