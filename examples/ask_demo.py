"""Minimal demonstration of the streaming query gateway."""

import asyncio

from book_agent import QueryRequest, ask


async def main() -> None:
    request = QueryRequest(question="实践、认识、再实践、再认识", book_name="实践论", mode="interpret")
    async for event in ask(request):
        if event.status.value == "PROGRESS":
            print(event.content, end="", flush=True)
        else:
            print(f"\n[{event.status.value}] {event.content}")


if __name__ == "__main__":
    asyncio.run(main())
