from .models import Company, ESGScore

__all__ = ["Company", "ESGScore"]
