"""
BookSwap — Neighbourhood Book Swapping Marketplace
===================================================
Users register with a postcode, list the books they are happy to part
with, request swaps with neighbours, and earn badges as they go.  A
subscription (trial + recurring billing) gates uploads and requests.

Package layout::

    bookswap/
    ├── config.py          # YAML → typed Python config
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session helpers
    │   └── models.py      # ORM models (users, books, swaps, badges)
    ├── engine/
    │   ├── badges.py      # Pure badge threshold evaluation
    │   ├── swaps.py       # Pure swap transition rules
    │   └── events.py      # Notification envelope
    ├── services/
    │   ├── swap_service.py         # Swap lifecycle + side effects
    │   ├── badge_service.py        # Idempotent badge awarding
    │   ├── book_service.py         # Book listing / upload / delete
    │   ├── user_service.py         # Registration, leaderboard, dashboard
    │   ├── billing_service.py      # Entitlement + payment provider
    │   ├── notification_service.py # Outbound queue + worker thread
    │   └── email_service.py        # Transactional email over HTTP
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT verification, engine, services
        └── routes/        # REST endpoints
"""

__version__ = "0.1.0"
