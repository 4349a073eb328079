"""
Example 01: Session-bound tutor conversation.

Run:
    TUTORPIPE_PROVIDER_API_KEY=sk-... python docs/library/examples/01_tutor_session.py
"""

from __future__ import annotations

import asyncio
import logging

from tutorpipe import ProviderClient, ProviderConfig, user_message
from tutorpipe.llms import ProviderError, logging_observer


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    async with ProviderClient(
        ProviderConfig.from_env(),
        observers=[logging_observer],
    ) as client:
        session = client.sessions.create("Biology")
        for question in ("What is mitosis?", "How is it different from meiosis?"):
            try:
                response = await client.send_to_session(session.id, question)
            except ProviderError as e:
                print("tutor:", user_message(e))
                continue
            print("tutor:", response.content)

        print("history length:", len(client.sessions.require(session.id).messages))
        print("health:", client.health_check())


if __name__ == "__main__":
    asyncio.run(main())
