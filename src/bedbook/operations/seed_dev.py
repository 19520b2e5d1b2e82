import os
from dataclasses import dataclass

import psycopg2


@dataclass(frozen=True)
class RoomSeed:
    code: str
    floor: int
    gender_policy: str
    allocation_policy: str
    beds: int


# One mess building with a room for every gender/allocation combination in use
DEFAULT_ROOMS = (
    RoomSeed("101", 1, "male_only", "employee_only", 4),
    RoomSeed("102", 1, "male_only", "guest_eligible", 2),
    RoomSeed("201", 2, "female_only", "employee_only", 4),
    RoomSeed("202", 2, "female_only", "guest_eligible", 2),
    RoomSeed("301", 3, "flexible", "guest_eligible", 2),
)


def env(name: str, default: str | None = None) -> str:
    v = os.getenv(name, default)
    if v is None or v.strip() == "":
        raise RuntimeError(f"Missing env var: {name}")
    return v


def bed_codes(room: RoomSeed) -> list[str]:
    """Bed codes for a room: ``101-A``, ``101-B``, ..."""
    return [f"{room.code}-{chr(ord('A') + i)}" for i in range(room.beds)]


def main() -> int:
    dsn = env("DATABASE_URL")
    area_code = env("SEED_AREA_CODE", "SITE")
    area_name = env("SEED_AREA_NAME", "Site Area")
    building_code = env("SEED_BUILDING_CODE", "MESS-A")
    building_name = env("SEED_BUILDING_NAME", "Mess A")

    beds_total = 0
    with psycopg2.connect(dsn) as conn:
        with conn.cursor() as cur:
            # 1) Area + building (idempotent)
            cur.execute(
                """
                INSERT INTO areas (code, name) VALUES (%s, %s)
                ON CONFLICT (code) DO UPDATE SET name = EXCLUDED.name
                RETURNING id
                """,
                (area_code, area_name),
            )
            (area_id,) = cur.fetchone()

            cur.execute(
                """
                INSERT INTO buildings (area_id, code, name) VALUES (%s, %s, %s)
                ON CONFLICT (code) DO UPDATE SET name = EXCLUDED.name, is_active = true
                RETURNING id
                """,
                (area_id, building_code, building_name),
            )
            (building_id,) = cur.fetchone()

            # 2) Rooms + beds (idempotent)
            for room in DEFAULT_ROOMS:
                cur.execute(
                    """
                    INSERT INTO rooms (building_id, code, name, floor, gender_policy, allocation_policy)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    ON CONFLICT (building_id, code) DO UPDATE SET
                      gender_policy = EXCLUDED.gender_policy,
                      allocation_policy = EXCLUDED.allocation_policy
                    RETURNING id
                    """,
                    (
                        building_id, room.code, f"Room {room.code}", room.floor,
                        room.gender_policy, room.allocation_policy,
                    ),
                )
                (room_id,) = cur.fetchone()

                for position, code in enumerate(bed_codes(room)):
                    cur.execute(
                        """
                        INSERT INTO beds (room_id, code, label, position)
                        VALUES (%s, %s, %s, %s)
                        ON CONFLICT (room_id, code) DO NOTHING
                        """,
                        (room_id, code, f"Bed {code[-1]}", position),
                    )
                    beds_total += 1

    print(
        "seed ok:",
        {
            "area_id": area_id,
            "building_id": building_id,
            "rooms": len(DEFAULT_ROOMS),
            "beds": beds_total,
        },
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
