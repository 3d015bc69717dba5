"""Storefront backend: shop availability and payment gateway callbacks."""
