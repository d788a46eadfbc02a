"""EVE Online data: an ESI client and the stored alliances, corporations and characters."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import httpx
import sqlalchemy as sa
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from roseauth.enums import CharacterAffiliationDto
from roseauth.schema import (
    Alliance,
    Character,
    Corporation,
    eve_alliance,
    eve_character,
    eve_corporation,
)


class EsiError(Exception):
    """A request to ESI failed or returned something unusable."""


@dataclass(frozen=True)
class EsiAlliance:
    name: str
    executor_corporation_id: int | None = None


@dataclass(frozen=True)
class EsiCorporation:
    name: str
    ceo_id: int
    alliance_id: int | None = None


@dataclass(frozen=True)
class EsiCharacter:
    name: str
    corporation_id: int
    alliance_id: int | None = None


@dataclass(frozen=True)
class EsiAffiliation:
    character_id: int
    corporation_id: int
    alliance_id: int | None = None
    faction_id: int | None = None


class EsiClient:
    """A small synchronous client for the public ESI endpoints this service uses."""

    def __init__(
        self,
        application_name: str,
        application_email: str,
        base_url: str,
        http: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_agent = f"{application_name} ({application_email})"
        self._owns_http = http is None
        self._http = http if http is not None else httpx.Client(timeout=30.0)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> EsiClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        try:
            response = self._http.request(
                method, f"{self.base_url}{path}", headers=headers, **kwargs
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise EsiError(
                f"ESI returned status {exc.response.status_code} for {path}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise EsiError(f"ESI request for {path} failed: {exc}") from exc

    def get_alliance(self, alliance_id: int) -> EsiAlliance:
        data = self._request("GET", f"/alliances/{alliance_id}/")
        try:
            return EsiAlliance(
                name=data["name"],
                executor_corporation_id=data.get("executor_corporation_id"),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise EsiError(f"malformed alliance {alliance_id}") from exc

    def get_corporation(self, corporation_id: int) -> EsiCorporation:
        data = self._request("GET", f"/corporations/{corporation_id}/")
        try:
            return EsiCorporation(
                name=data["name"],
                ceo_id=data["ceo_id"],
                alliance_id=data.get("alliance_id"),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise EsiError(f"malformed corporation {corporation_id}") from exc

    def get_character(self, character_id: int) -> EsiCharacter:
        data = self._request("GET", f"/characters/{character_id}/")
        try:
            return EsiCharacter(
                name=data["name"],
                corporation_id=data["corporation_id"],
                alliance_id=data.get("alliance_id"),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise EsiError(f"malformed character {character_id}") from exc

    def get_character_affiliations(self, character_ids: Iterable[int]) -> list[EsiAffiliation]:
        data = self._request("POST", "/characters/affiliation/", json=list(character_ids))
        if not isinstance(data, list):
            raise EsiError("malformed character affiliations")
        try:
            return [
                EsiAffiliation(
                    character_id=item["character_id"],
                    corporation_id=item["corporation_id"],
                    alliance_id=item.get("alliance_id"),
                    faction_id=item.get("faction_id"),
                )
                for item in data
            ]
        except (KeyError, TypeError, AttributeError) as exc:
            raise EsiError("malformed character affiliations") from exc


def _unique(ids: Iterable[int]) -> list[int]:
    return list(dict.fromkeys(ids))


def _select_one(conn: Connection, table: sa.Table, model: Any, *where: Any) -> Any:
    row = conn.execute(sa.select(table).where(*where)).first()
    return model.from_row(row) if row is not None else None


def _insert(conn: Connection, table: sa.Table, model: Any, **values: Any) -> Any:
    result = conn.execute(table.insert().values(**values))
    return _select_one(conn, table, model, table.c.id == result.inserted_primary_key[0])


# -- alliances -----------------------------------------------------------------


def get_alliance(conn: Connection, alliance_id: int) -> Alliance | None:
    return _select_one(conn, eve_alliance, Alliance, eve_alliance.c.alliance_id == alliance_id)


def create_alliance(conn: Connection, esi: EsiClient, alliance_id: int) -> Alliance:
    """Return the stored alliance, fetching and storing it first if unknown."""
    existing = get_alliance(conn, alliance_id)
    if existing is not None:
        return existing
    fetched = esi.get_alliance(alliance_id)
    return _insert(
        conn,
        eve_alliance,
        Alliance,
        alliance_id=alliance_id,
        alliance_name=fetched.name,
        executor=fetched.executor_corporation_id,
    )


def bulk_get_alliances(conn: Connection, alliance_ids: Iterable[int]) -> list[Alliance]:
    """The stored alliances among the given ids; unknown ids are left out."""
    query = (
        sa.select(eve_alliance)
        .where(eve_alliance.c.alliance_id.in_(_unique(alliance_ids)))
        .order_by(eve_alliance.c.id)
    )
    return [Alliance.from_row(row) for row in conn.execute(query)]


# -- corporations --------------------------------------------------------------


def get_corporation(conn: Connection, corporation_id: int) -> Corporation | None:
    return _select_one(
        conn, eve_corporation, Corporation, eve_corporation.c.corporation_id == corporation_id
    )


def create_corporation(conn: Connection, esi: EsiClient, corporation_id: int) -> Corporation:
    """Return the stored corporation, fetching and storing it (and its alliance) if unknown."""
    existing = get_corporation(conn, corporation_id)
    if existing is not None:
        return existing
    fetched = esi.get_corporation(corporation_id)
    if fetched.alliance_id is not None:
        try:
            create_alliance(conn, esi, fetched.alliance_id)
        except (EsiError, SQLAlchemyError):
            pass
    return _insert(
        conn,
        eve_corporation,
        Corporation,
        corporation_id=corporation_id,
        corporation_name=fetched.name,
        alliance_id=fetched.alliance_id,
        ceo=fetched.ceo_id,
    )


def bulk_get_corporations(conn: Connection, corporation_ids: Iterable[int]) -> list[Corporation]:
    """The stored corporations among the given ids; unknown ids are left out."""
    query = (
        sa.select(eve_corporation)
        .where(eve_corporation.c.corporation_id.in_(_unique(corporation_ids)))
        .order_by(eve_corporation.c.id)
    )
    return [Corporation.from_row(row) for row in conn.execute(query)]


# -- characters ----------------------------------------------------------------


def get_character(conn: Connection, character_id: int) -> Character | None:
    return _select_one(
        conn, eve_character, Character, eve_character.c.character_id == character_id
    )


def create_character(
    conn: Connection,
    esi: EsiClient,
    character_id: int,
    character_name: str | None = None,
) -> Character:
    """Return the stored character, fetching and storing it (and its corporation) if unknown."""
    existing = get_character(conn, character_id)
    if existing is not None:
        return existing
    if character_name is None:
        character_name = esi.get_character(character_id).name
    affiliations = esi.get_character_affiliations([character_id])
    if not affiliations:
        raise EsiError(f"no affiliation returned for character {character_id}")
    corporation_id = affiliations[0].corporation_id
    try:
        create_corporation(conn, esi, corporation_id)
    except (EsiError, SQLAlchemyError):
        pass
    return _insert(
        conn,
        eve_character,
        Character,
        character_id=character_id,
        character_name=character_name,
        corporation_id=corporation_id,
    )


def bulk_get_characters(conn: Connection, character_ids: Iterable[int]) -> list[Character]:
    """The stored characters among the given ids; unknown ids are left out."""
    query = (
        sa.select(eve_character)
        .where(eve_character.c.character_id.in_(_unique(character_ids)))
        .order_by(eve_character.c.id)
    )
    return [Character.from_row(row) for row in conn.execute(query)]


def bulk_get_character_affiliations(
    conn: Connection, character_ids: Iterable[int]
) -> list[CharacterAffiliationDto]:
    """Stored characters with their corporation and alliance names."""
    characters = bulk_get_characters(conn, character_ids)
    corporations = {
        corporation.corporation_id: corporation
        for corporation in bulk_get_corporations(
            conn, {character.corporation_id for character in characters}
        )
    }
    alliances = {
        alliance.alliance_id: alliance
        for alliance in bulk_get_alliances(
            conn,
            {
                corporation.alliance_id
                for corporation in corporations.values()
                if corporation.alliance_id is not None
            },
        )
    }

    affiliations = []
    for character in characters:
        corporation = corporations.get(character.corporation_id)
        if corporation is None:
            raise LookupError(
                f"corporation {character.corporation_id} of character "
                f"{character.character_id} is not stored"
            )
        alliance_id = alliance_name = None
        if corporation.alliance_id is not None:
            alliance = alliances.get(corporation.alliance_id)
            if alliance is None:
                raise LookupError(
                    f"alliance {corporation.alliance_id} of corporation "
                    f"{corporation.corporation_id} is not stored"
                )
            alliance_id, alliance_name = alliance.alliance_id, alliance.alliance_name
        affiliations.append(
            CharacterAffiliationDto(
                character_id=character.character_id,
                character_name=character.character_name,
                corporation_id=corporation.corporation_id,
                corporation_name=corporation.corporation_name,
                alliance_id=alliance_id,
                alliance_name=alliance_name,
            )
        )
    return affiliations


def update_affiliation(conn: Connection, esi: EsiClient, character_ids: Iterable[int]) -> None:
    """Refresh the corporation of each stored character from ESI."""
    ids = list(character_ids)
    characters = bulk_get_characters(conn, ids)
    by_character = {
        affiliation.character_id: affiliation
        for affiliation in esi.get_character_affiliations(ids)
    }
    for character in characters:
        affiliation = by_character.get(character.character_id)
        if affiliation is not None:
            conn.execute(
                eve_character.update()
                .where(eve_character.c.id == character.id)
                .values(corporation_id=affiliation.corporation_id)
            )