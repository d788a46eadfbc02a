# roseauth

Building blocks for an authentication and group management service for
EVE Online communities. The package keeps track of users, the characters
they own, which character is each user's main, and the corporations and
alliances those characters belong to. Character, corporation and alliance
details are fetched from the ESI API and stored in a relational database
through SQLAlchemy. Administrators can create and manage groups through
Starlette endpoints.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install ".[test]"
```

## What is in the package

| Module                       | Contents                                                                 |
|------------------------------|--------------------------------------------------------------------------|
| `roseauth.enums`             | `GroupType`, `GroupFilterType`, `GroupFilterCriteria`, `GroupFilterCriteriaType`, the transfer objects (`GroupDto`, `NewGroupDto`, `UserDto`, `CharacterAffiliationDto`, filter DTOs) and `parse_new_group` / `parse_update_group_filter` for decoded JSON |
| `roseauth.schema`            | SQLAlchemy `metadata` with every table, row models (`Group`, `Permission`, `User`, `CharacterOwnership`, `Alliance`, `Corporation`, `Character`) built with `from_row`, `group_to_dto` and `related_tables` |
| `roseauth.migration_initial` | `InitialMigration` (EVE and user tables) and `PermissionsMigration`      |
| `roseauth.migration_groups`  | `GroupsMigration` (group tables, and enumeration types on PostgreSQL)    |
| `roseauth.eve_data`          | `EsiClient`, `EsiError` and functions that read, fetch and store alliances, corporations and characters |
| `roseauth.auth_data`         | Functions for users, character ownerships, main characters, permissions and groups |
| `roseauth.seed`              | `seed_auth_permissions`, `generate_setup_code` and `create_admin`        |
| `roseauth.routes`            | The HTTP handlers, `build_routes(debug)` and `openapi_spec()`            |

## Creating the schema

Each migration has `up(conn)` and `down(conn)` taking a SQLAlchemy
connection. Apply them in order:

```python
import sqlalchemy as sa

from roseauth.migration_groups import GroupsMigration
from roseauth.migration_initial import InitialMigration, PermissionsMigration

engine = sa.create_engine("sqlite:///roseauth.db")
with engine.begin() as conn:
    for migration in (InitialMigration(), PermissionsMigration(), GroupsMigration()):
        migration.up(conn)
```

Run `down` in the reverse order to remove them. On SQLite, foreign keys are
not dropped separately; they go away with their tables.

## Data helpers

The functions in `roseauth.auth_data` and `roseauth.eve_data` take a
SQLAlchemy connection as their first argument and return the row models
from `roseauth.schema`.

```python
from roseauth import auth_data, eve_data
from roseauth.eve_data import EsiClient

with EsiClient("My App", "admin@example.com", "https://esi.example.com/latest") as esi:
    with engine.begin() as conn:
        character = eve_data.create_character(conn, esi, 90000001)
        user_id = auth_data.create_user(conn)
        auth_data.update_ownership(conn, user_id, character.character_id, "ownerhash")
        print(eve_data.bulk_get_character_affiliations(conn, [character.character_id]))
```

`EsiClient` sends a `User-Agent` of `"<name> (<email>)"` and raises
`EsiError` when a request fails or the answer is malformed. The `create_*`
functions return the stored row when there is one and otherwise fetch the
entry from ESI and store it; creating a corporation also tries to store its
alliance, and creating a character tries to store its corporation.

`auth_data.update_ownership` moves a character to a new owner: if it was
the previous owner's main and that owner has other characters, another of
them becomes main; the character becomes the new owner's main only if they
owned no characters before.

## Seeding

`seed.create_admin(conn, backend_domain, store, debug=False)` checks for an
administrator. If there is none, it stores a random 20–64 character
alphanumeric code under `admin_setup_code` for 300 seconds with
`store.setex(name, time, value)` (a Redis client has this method), prints a
login link carrying the code and returns the code. Otherwise it returns
`None`, printing the plain login link when `debug` is true.

`seed.seed_auth_permissions(conn)` stores the permissions of the auth
module; none are defined at present, so it returns an empty list.

## HTTP endpoints

`routes.build_routes(debug)` returns Starlette routes:

User endpoints (need a logged-in session):

- `GET /user` – id, main character id and main character name
- `GET /user/main` – the main character with its corporation and alliance
- `GET /user/characters` – every character the user owns, with affiliations

Group endpoints (need an administrator session):

- `POST /groups` – create a group
- `GET /groups` – list groups
- `GET /groups/{id}` – one group
- `PUT /groups/{id}` – replace a group
- `DELETE /groups/{id}` – delete a group

Errors are plain text: 404 when the session has no user, 403 when the
user is not an administrator, 400 for a group id that is not a 32-bit
integer or a body that is not JSON, 415 without a JSON content type and
422 for a body of the wrong shape. A group body looks like:

```json
{
  "name": "Fleet Commanders",
  "description": "People who lead fleets",
  "confidential": false,
  "group_type": "Apply"
}
```

`group_type` is one of `Open`, `Auto`, `Apply` or `Hidden`.

With `debug=True` the routes also serve the OpenAPI document at
`/openapi.json` and a plain HTML list of the endpoints at `/docs`.

The handlers expect `app.state.engine` to hold a SQLAlchemy engine and
`scope["session"]` to be a mapping whose `"user"` entry is the user id as
a string:

```python
from starlette.applications import Starlette

from roseauth.routes import build_routes

app = Starlette(routes=build_routes(debug=True))
app.state.engine = engine
```

## What the package does not do

The package has no command line: there is no command that starts the
server and none that runs the migrations. It provides no session
middleware or session store, so the application that mounts the routes
must put the session into the request scope itself, and it has no login
flow with EVE Online SSO; the setup code stored by `create_admin` is not
checked by anything in the package. Configuration is not read from the
environment; every value is passed in by the caller.