# src/services/marketplace_api/__init__.py
"""
Marketplace API: заказы, доставка, оплата.
"""
