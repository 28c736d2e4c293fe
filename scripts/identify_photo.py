"""
Smoke test for photo identification.

Sends one photo to the live vision service and looks every candidate up
in Google Books. Nothing is written to the catalog or the cache.

Usage:
    python scripts/identify_photo.py shelf.jpg
"""

import argparse
import asyncio
import sys

from dotenv import load_dotenv

# Load env vars
load_dotenv()

from booktender.config import get_settings
from booktender.exceptions import BookTenderException
from booktender.identification.google_books import GoogleBooksClient
from booktender.identification.vision import VisionIdentifier
from booktender.storage.credentials import EnvCredentialStore


async def main(image_path: str) -> int:
    settings = get_settings()
    credentials = EnvCredentialStore()

    print(f"Identifying books in {image_path} with {settings.vision_model}...")
    vision = VisionIdentifier(
        credentials,
        model=settings.vision_model,
        max_tokens=settings.vision_max_tokens,
        timeout=settings.vision_timeout,
    )
    catalog = GoogleBooksClient(credentials, timeout=settings.catalog_timeout)

    try:
        candidates = await vision.identify_file(image_path)
        print(f"\n--- {len(candidates)} candidate(s) ---\n")

        for candidate in candidates:
            print(f"{candidate.title} by {candidate.author or '?'} [{candidate.confidence.value}]")
            if candidate.spine_text:
                print(f"   spine: {candidate.spine_text}")
            try:
                metadata = await catalog.lookup(candidate.title, candidate.author, isbn=candidate.isbn)
            except BookTenderException as e:
                print(f"   catalog error: {e.message}")
                continue
            if metadata:
                print(f"   catalog: {metadata.title} by {metadata.author} ({metadata.year}) ISBN {metadata.isbn}")
            else:
                print("   catalog: no match")
            print("-" * 30)
    except BookTenderException as e:
        print(f"Error: {e.message}")
        return 1
    finally:
        await vision.close()
        await catalog.close()

    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Identify the books in one photo")
    parser.add_argument("image_path", help="Path to a shelf or stack photo")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.image_path)))
