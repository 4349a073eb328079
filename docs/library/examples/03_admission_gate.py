"""
Example 03: Gate provider calls per student with the admission limiter.

Run:
    TUTORPIPE_PROVIDER_API_KEY=sk-... python docs/library/examples/03_admission_gate.py
"""

from __future__ import annotations

import asyncio

from tutorpipe import AdmissionGate, AdmissionLimiter, ProviderClient, user_message
from tutorpipe.admission import API_POLICY
from tutorpipe.llms import AdmissionDeniedError, MiddlewareStack, ProviderError


async def main() -> None:
    limiter = AdmissionLimiter(API_POLICY)
    gate = AdmissionGate(limiter, action="tutor_question")

    async with limiter, ProviderClient(
        middlewares=MiddlewareStack(chat=[gate.chat], stream=[gate.stream])
    ) as client:
        try:
            response = await client.complete(
                "Give me one practice question on fractions.",
                system_prompt="You are a patient maths tutor.",
            )
            print(response.content)
        except (AdmissionDeniedError, ProviderError) as e:
            print(user_message(e))

        print(limiter.get_status("anonymous", "tutor_question"))


if __name__ == "__main__":
    asyncio.run(main())
