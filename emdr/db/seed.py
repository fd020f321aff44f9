"""Database seeder for demo data."""

import asyncio
import random
from datetime import date, timedelta
from pathlib import Path

from loguru import logger

from emdr.core.config import get_settings
from emdr.core.security import get_password_hash
from emdr.db.base import Base
from emdr.db import models_registry  # noqa: F401 - Import to register models
from emdr.db.session import async_session_maker, engine
from emdr.editor.defaults import new_draft
from emdr.editor.sections import add_durchgang, add_iri_set
from emdr.models.user import User
from emdr.schemas.protocol import (
    ChannelItem,
    Fragment,
    ProtocolType,
    ProtocolVariant,
    Speed,
    Stimulation,
)
from emdr.services.protocol_service import ProtocolService

DEMO_USER_ID = "demo-therapist"
DEMO_USERNAME = "therapeut"
DEMO_PASSWORD = "therapeut123"

SAMPLE_CHIFFRES = ["P-001", "P-002", "P-003", "K-101", "K-102", "M-201", "M-202", "T-301"]

SAMPLE_START_KNOTEN = [
    "Patient berichtet von belastender Erinnerung aus der Kindheit",
    "Aktueller Auslöser: Konflikt am Arbeitsplatz",
    "Traumatisches Ereignis: Autounfall vor 2 Jahren",
    "Verlusterfahrung: Tod eines nahestehenden Menschen",
    "Angst vor öffentlichen Auftritten",
]

SAMPLE_FRAGMENTS = [
    "Bild wird heller, weniger bedrohlich",
    "Körperempfindung im Brustbereich nimmt ab",
    "Gefühl von Anspannung lässt nach",
    "Erinnerung wird distanzierter",
    "Gefühl von Sicherheit nimmt zu",
    "Neue Einsicht: \"Es war nicht meine Schuld\"",
    "Körperliche Entspannung breitet sich aus",
]

SAMPLE_EINWEBUNGEN = [
    "Was brauchen Sie jetzt, um sich sicher zu fühlen?",
    "Welche Stärke hat Ihnen in der Vergangenheit geholfen?",
    "Wo im Körper spüren Sie Ihre Kraft?",
]

SAMPLE_POSITIVE_MOMENTE = [
    "Spaziergang am Meer mit der Großmutter. Gefühl von Geborgenheit und Ruhe.",
    "Erfolgreicher Abschluss der Ausbildung. Stolz und Selbstwirksamkeit.",
    "Wanderung in den Bergen mit Freunden. Gefühl von Freiheit.",
]

SAMPLE_ORTE = ["Strand am Morgen", "Lichtung im Wald", "Großmutters Küche", "Berghütte"]


def random_date() -> str:
    """Random date within the last 90 days."""
    return (date.today() - timedelta(days=random.randint(0, 90))).isoformat()


def standard_protocol(chiffre: str, nummer: int, protocol_type: ProtocolType) -> ProtocolVariant:
    draft = new_draft(
        protocol_type,
        chiffre=chiffre,
        datum=random_date(),
        protokollnummer=str(nummer),
    )
    draft = draft.model_copy(update={"start_knoten": random.choice(SAMPLE_START_KNOTEN)})
    channel = [
        ChannelItem(
            stimulation=Stimulation(
                anzahl_bewegungen=random.choice([12, 18, 24, 30, 36]),
                geschwindigkeit=random.choice(list(Speed)),
            ),
            fragment=Fragment(
                text=random.choice(SAMPLE_FRAGMENTS),
                einwebung=random.choice(SAMPLE_EINWEBUNGEN) if random.random() < 0.3 else None,
            ),
        )
        for _ in range(random.randint(3, 8))
    ]
    return draft.model_copy(update={"channel": channel})


def iri_protocol(chiffre: str, nummer: int) -> ProtocolVariant:
    draft = new_draft(
        ProtocolType.IRI, chiffre=chiffre, datum=random_date(), protokollnummer=str(nummer)
    )
    for _ in range(random.randint(1, 3)):
        draft = add_iri_set(draft)
    indikation = draft.indikation.model_copy(update={
        "indikation_checklist": ["wenig_ressourcen"],
        "ziel_der_iri": "Aufbau von Ressourcen für bevorstehende belastende Arbeit.",
    })
    moment = draft.positiver_moment.model_copy(update={
        "positiver_moment_beschreibung": random.choice(SAMPLE_POSITIVE_MOMENTE),
    })
    return draft.model_copy(update={
        "indikation": indikation,
        "positiver_moment": moment,
        "lope_vorher": random.randint(2, 5),
        "lope_nachher": random.randint(6, 9),
    })


def cipos_protocol(chiffre: str, nummer: int) -> ProtocolVariant:
    draft = new_draft(
        ProtocolType.CIPOS, chiffre=chiffre, datum=random_date(), protokollnummer=str(nummer)
    )
    for _ in range(random.randint(1, 3)):
        draft = add_durchgang(draft)
    return draft


def sicherer_ort_protocol(chiffre: str, nummer: int) -> ProtocolVariant:
    draft = new_draft(
        ProtocolType.SICHERER_ORT,
        chiffre=chiffre,
        datum=random_date(),
        protokollnummer=str(nummer),
    )
    findung = draft.findung.model_copy(update={
        "ort_typ": "real",
        "ort_nennung": random.choice(SAMPLE_ORTE),
        "gefuehl_beim_ort": "ruhig, geborgen",
    })
    set1 = draft.set1.model_copy(update={
        "bls_durchgefuehrt": True,
        "stimulation_art": "augenbewegungen",
        "reaktion_nach_set": "positiv",
        "interpretation_fall": "fall1_weiter",
    })
    return draft.model_copy(update={"findung": findung, "set1": set1})


async def create_tables():
    """Create all tables."""
    Path(get_settings().data_save_folder).mkdir(parents=True, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables created")


async def seed_users():
    """Seed the demo therapist."""
    async with async_session_maker() as db:
        if not await db.get(User, DEMO_USER_ID):
            db.add(User(
                id=DEMO_USER_ID,
                username=DEMO_USERNAME,
                hashed_password=get_password_hash(DEMO_PASSWORD),
                display_name="Demo Therapeut",
                is_active=True,
            ))
            await db.commit()
    logger.info(f"Seeded demo user '{DEMO_USERNAME}'")


async def seed_protocols():
    """Seed protocols of every type for the demo therapist."""
    builders = [
        lambda c, n: standard_protocol(c, n, ProtocolType.STANDARD),
        lambda c, n: standard_protocol(c, n, ProtocolType.CUSTOM),
        iri_protocol,
        cipos_protocol,
        sicherer_ort_protocol,
    ]

    count = 0
    async with async_session_maker() as db:
        service = ProtocolService(db, DEMO_USER_ID)
        for chiffre in SAMPLE_CHIFFRES:
            for nummer in range(1, random.randint(2, 4)):
                await service.save(random.choice(builders)(chiffre, nummer))
                count += 1
    logger.info(f"Seeded {count} protocols")


async def seed_all():
    """Seed all demo data."""
    logger.info("Starting database seeding...")

    await create_tables()
    await seed_users()
    await seed_protocols()

    logger.info("Database seeding completed!")


async def clear_all():
    """Clear all data from tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("All tables cleared and recreated")


if __name__ == "__main__":
    import sys

    if len(sys.argv) > 1 and sys.argv[1] == "--clear":
        asyncio.run(clear_all())
    else:
        asyncio.run(seed_all())
