"""
Content app.

Catalogue of purchasable creator content (posts with media items, media
packs) and the purchase rows that unlock them.
"""
