# /main.py

import asyncio
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from core.layout_engine import LayoutState, TickFrame
from core.logger import get_logger
from core.models import EnrichmentSubject
from core.session import GraphSession
from ingestion.queue import IngestionQueue
from ingestion.sources import GeminiEnrichmentSource

logger = get_logger("main")

SAMPLE_SUBJECTS = [
    EnrichmentSubject(
        id="signal-1",
        title="Security Council emergency session",
        text="""
        The United Nations Security Council met in New York after the International
        Atomic Energy Agency reported irregular activity at a research reactor.
        """,
    ),
    EnrichmentSubject(
        id="signal-2",
        title="Grid outage attributed to ransomware",
        text="""
        A ransomware group calling itself Black Tide claimed responsibility for a power
        grid outage in Tallinn. NATO's Cyber Defence Centre in Tallinn is assisting.
        """,
    ),
]


async def run_session(topic: str, pattern: Optional[str] = None) -> str:
    session = GraphSession()
    queue = IngestionQueue(session, GeminiEnrichmentSource())

    frames = 0

    def on_tick(frame: TickFrame):
        nonlocal frames
        frames += 1

    queue.subscribe(lambda items: logger.info(
        "In-flight subjects changed", extra={"in_flight": sorted(i.subject_id for i in items)}
    ))
    layout = asyncio.create_task(session.run_layout(on_tick))

    await queue.start_topic(topic, SAMPLE_SUBJECTS)
    await queue.join()
    if pattern:
        await queue.scan_pattern(pattern)
    # Falls back to inferring classes when the domain ontology could not be generated
    await queue.show_ontology_layer(True)
    while session.engine.state is LayoutState.RUNNING:
        await asyncio.sleep(0.1)

    session.engine.stop()
    await layout
    logger.info("Layout settled", extra={"frames": frames, "nodes": len(session.store)})
    return session.export_jsonld()


def main():
    """
    Runs one enrichment session on the topic given on the command line and
    prints the resulting graph as JSON-LD. Anything after `--scan` is a
    pattern to search for once the subjects are merged.
    """
    load_dotenv()

    if not os.getenv("GOOGLE_API_KEY"):
        print("Error: GOOGLE_API_KEY not found in .env file.")
        return

    args = sys.argv[1:]
    pattern = None
    if "--scan" in args:
        at = args.index("--scan")
        pattern = " ".join(args[at + 1:])
        args = args[:at]
    topic = " ".join(args) or "Global Situation"
    print(asyncio.run(run_session(topic, pattern)))


if __name__ == '__main__':
    main()
