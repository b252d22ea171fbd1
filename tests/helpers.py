from datetime import date, timedelta

# Fixed reference day for every test: Thursday 12 March 2026
TODAY = date(2026, 3, 12)


def days_ago(n: int) -> date:
    return TODAY - timedelta(days=n)
