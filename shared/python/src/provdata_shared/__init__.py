"""
provdata_shared — shared configuration, storage access, models and province
registry for the provdata platform.

Usage:
    from provdata_shared.config import settings
    from provdata_shared.db import get_duckdb_connection, unit_of_work
    from provdata_shared.provinces import resolve
    from provdata_shared.datasets import get_dataset
    from provdata_shared.classification import food_security_category
"""

__version__ = "0.1.0"
