"""
DONTCLOSETHIS — Dog Breed

Fetches a random dog photo and the full breed list from the Dog CEO API and
asks for the breed. The breed is read from the image URL
(.../breeds/hound-afghan/xxx.jpg -> "Afghan Hound"). Any network or parse
failure turns the level into a single YES button that advances.

Fetching happens on the first scheduler tick after setup, so the level shows
"Loading..." first and a teardown before the fetch cancels it.

The fetch is a blocking httpx call on the scheduler thread. While it runs no
other timer fires, so the elapsed ticker and any timer due in that window run
late by up to DOG_BREED["TIMEOUT"] seconds; they catch up on the next tick.
"""

import logging

import httpx

from config.settings import LevelConfig
from challenges.base import Challenge, LevelContext
from engine.decoys import build_options, pick_distinct

logger = logging.getLogger("dontclosethis.challenges")


def format_breed(slug: str) -> str:
    """'hound-afghan' -> 'Afghan Hound', 'labrador' -> 'Labrador'."""
    parts = slug.split("-")
    if len(parts) > 1:
        return f"{parts[1].capitalize()} {parts[0].capitalize()}"
    return slug.capitalize()


def breed_from_image_url(url: str) -> str:
    parts = url.split("/")
    if "breeds" not in parts:
        raise ValueError(f"No breed in image URL: {url}")
    return format_breed(parts[parts.index("breeds") + 1])


def flatten_breeds(listing: dict) -> list[str]:
    """{'hound': ['afghan', 'basset'], 'pug': []} -> ['Afghan Hound', 'Basset Hound', 'Pug']."""
    names = []
    for breed, sub_breeds in listing.items():
        if sub_breeds:
            names.extend(format_breed(f"{breed}-{sub}") for sub in sub_breeds)
        else:
            names.append(format_breed(breed))
    return names


class DogBreedChallenge(Challenge):
    key = "dog_breed"
    title = "Dog Breed Identification"
    shape = "binary"

    def __init__(self, client: httpx.Client = None):
        self.client = client

    def _fetch(self, client: httpx.Client) -> tuple[str, str, list[str]]:
        cfg = LevelConfig.DOG_BREED
        resp = client.get(cfg["API_URL"])
        resp.raise_for_status()
        image_url = resp.json().get("message")
        if not image_url:
            raise ValueError("Failed to load dog image")
        correct = breed_from_image_url(image_url)

        resp = client.get(cfg["ALL_BREEDS_URL"])
        resp.raise_for_status()
        every = flatten_breeds(resp.json().get("message") or {})
        return image_url, correct, every

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.DOG_BREED
        owned = self.client is None
        client = self.client or httpx.Client(timeout=cfg["TIMEOUT"])

        ctx.board.set_prompt("Loading dog image...")
        ctx.board.view = {"loading": True}

        def load():
            try:
                image_url, correct, every = self._fetch(client)
            except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Dog API unavailable, using fallback: {e}")
                ctx.board.set_prompt("Failed to load dog image. Click YES to continue.")
                ctx.board.view = {"loading": False, "fallback": True}
                ctx.board.add_button("YES", ctx.advance)
                return
            finally:
                if owned:
                    client.close()

            wrong = pick_distinct(every, cfg["ANSWER_COUNT"] - 1, ctx.rng, exclude=[correct])
            options = build_options(correct, wrong, ctx.rng)
            ctx.board.set_prompt("What breed is this dog?")
            ctx.board.view = {"loading": False, "image_url": image_url,
                              "answer": correct, "options": options}
            for breed in options:
                ctx.board.add_button(breed, ctx.advance if breed == correct else ctx.fail)

        ctx.timers.call_later(0, load, label="dog_breed.fetch")

        def cleanup():
            if owned and not client.is_closed:
                client.close()

        return cleanup
