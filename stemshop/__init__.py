"""
stemshop — checkout order creation for the STEM-toy storefront.

    from stemshop import pricing as P    # Settings, coupons, price breakdown
    from stemshop import catalog         # Cart line resolution
    from stemshop import orders          # The write transaction
    from stemshop import effects         # Post-commit best-effort work
    from stemshop import pipeline        # The checkout graph + service
    from stemshop.web import create_app  # FastAPI surface
"""

__version__ = "0.1.0"

__all__ = ("__version__",)
