from __future__ import annotations
import os

# Reported by /api/health; ASTRO_VERSION lets a deployment stamp its release tag.
VERSION = os.getenv("ASTRO_VERSION", "1.2.0")
