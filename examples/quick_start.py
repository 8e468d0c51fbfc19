#!/usr/bin/env python3
"""
Quick Start - Save a small document graph and read it back.

Usage:
    python examples/quick_start.py
    QUIRE_STORE_URL=sqlite:///demo.db python examples/quick_start.py
"""

import asyncio
import logging

from quire import Document, Field, File, NestedCollection, ReferenceCollection


class Track(Document):
    title = Field()
    seconds = Field()


class Artist(Document):
    name = Field()


class Album(Document):
    title = Field()
    cover = Field()
    tracks = Field()
    artists = Field()


async def main():
    logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    artist = Artist()
    artist.name = "The Quires"
    await artist.save()

    album = Album()
    album.title = "Bound Pages"
    album.cover = File(name="cover.jpg", mime_type="image/jpeg", url="https://example.com/cover.jpg")
    album.tracks = NestedCollection(Track)
    for title, seconds in [("Folio", 201), ("Signature", 187)]:
        track = Track()
        track.title = title
        track.seconds = seconds
        album.tracks.insert(track)
    album.artists = ReferenceCollection(Artist, [artist])

    # Album, both tracks and the artist pointer in one batch
    await album.save()

    album.title = "Bound Pages (Deluxe)"
    print(f"Pending changes: {album.dirty_fields}")
    await album.update()

    loaded = await Album.get(album.id)
    loaded.tracks = NestedCollection(Track)
    loaded.artists = ReferenceCollection(Artist)
    print(f"{loaded.title} ({loaded.cover['url']})")
    for track in await loaded.tracks.get():
        print(f"  {track.title}: {track.seconds}s")
    for member in await loaded.artists.get():
        print(f"  by {member.name}")


if __name__ == "__main__":
    asyncio.run(main())
