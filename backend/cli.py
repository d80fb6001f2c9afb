"""
Terminal chat with the finance assistant.

Keeps one transcript for the whole session so follow-up questions see earlier
answers. Type 'bye' to quit.
"""

import asyncio
import logging

from dotenv import load_dotenv

from database import AsyncSessionLocal, create_tables
from graph.agent import APOLOGY, FinanceAgent

load_dotenv()

logging.basicConfig(level=logging.WARNING)

EXIT_WORD = "bye"


async def chat(read=input, write=print) -> None:
    await create_tables()
    history = []

    async with AsyncSessionLocal() as db:
        agent = FinanceAgent(db)
        while True:
            question = await asyncio.to_thread(read, "User: ")
            if question.strip().lower() == EXIT_WORD:
                break
            if not question.strip():
                continue

            run = await agent.run(question, history=history)
            if run.reply != APOLOGY:
                # messages[0] is the system prompt, rebuilt on every turn
                history = run.messages[1:]
            write(f"Assistant: {run.reply}")


def main() -> None:
    try:
        asyncio.run(chat())
    except (EOFError, KeyboardInterrupt):
        pass


if __name__ == "__main__":
    main()
