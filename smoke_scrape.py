"""
Quick smoke test, run with: python smoke_scrape.py [url ...]
Scrapes each URL live, then prints the preview and the record that would be saved.
"""

import asyncio
import json
import sys

from scraper import FetchError, refine, scrape

URLS = [
    "example.com",
    "https://www.python.org/",
    "http://blog.rei.com/camp/how-to-introduce-your-indoorsy-friend-to-the-outdoors/",
]


def print_json(label, data):
    print(f"--- {label} ---")
    print(json.dumps(data, indent=2, default=str))


async def main(urls):
    for url in urls:
        print(f"\n>>> Scraping: {url}\n")
        try:
            result = await scrape(url)
        except FetchError as exc:
            print(f"FAILED: {exc.reason}")
            continue

        preview = result.to_dict()
        preview["text"] = preview["text"][:300] + "..."
        preview["links"] = preview["links"][:5]
        print_json("extraction (trimmed)", preview)
        print_json("refined record", refine(result).to_dict())
        print("-" * 80)


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1:] or URLS))
