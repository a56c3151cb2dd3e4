#!/usr/bin/env python3
"""
Sanity check script to verify the basic flow of the application.
This script:
1. Registers and logs in a throwaway user
2. Creates a character
3. Chats with it over the SSE stream
4. Lists the stored messages and today's usage

It talks to a running server and needs a working GOOGLE_API_KEY there.

Usage:
    python scripts/sanity_check.py
"""

import asyncio
import json
import os
import sys
import uuid

import httpx
from rich.console import Console
from rich.table import Table

# Create console for nice output
console = Console()

# API URL (can be overridden with environment variable)
API_URL = os.getenv("API_URL", "http://localhost:8000")

# Generate unique ID for this run
run_id = str(uuid.uuid4())[:8]

TEST_USER = {
    "name": f"Sanity_{run_id}",
    "email": f"sanity_{run_id}@example.com",
    "password": f"password-{run_id}",
}

SAMPLE_CHARACTER = {
    "name": "Luna",
    "description": "A cheerful librarian who loves old maps",
    "personality": "Curious, warm and a little dramatic. Calls {{user}} by name.",
    "greeting": "*looks up from a map* Oh! Welcome to the archive!",
    "exampleDialogs": [{"user": "What are you reading?", "char": "*grins* A map of a city that no longer exists, {{user}}."}],
    "visibility": "PRIVATE",
}

CHAT_MESSAGE = "안녕! 오늘은 무슨 지도를 보고 있어?"


async def check_health(client):
    """Check if the API is healthy"""
    console.print("\n[bold blue]Checking API health...[/bold blue]")

    try:
        response = await client.get("/health")
        if response.status_code == 200:
            console.print("[green]✓ API is healthy![/green]")
            return True
        console.print(f"[red]✗ API returned status {response.status_code}[/red]")
        return False
    except Exception as e:
        console.print(f"[red]✗ Error connecting to API: {str(e)}[/red]")
        return False


async def register_and_login(client):
    """Create the test account and keep its auth cookie on the client"""
    console.print("\n[bold blue]Registering test user...[/bold blue]")

    response = await client.post("/api/auth/register", json=TEST_USER)
    if response.status_code != 201:
        console.print(f"[red]✗ Failed to register: {response.status_code} - {response.text}[/red]")
        return False

    response = await client.post("/api/auth/login", json={"email": TEST_USER["email"], "password": TEST_USER["password"]})
    if response.status_code != 200:
        console.print(f"[red]✗ Failed to log in: {response.status_code} - {response.text}[/red]")
        return False

    console.print(f"[green]✓ Logged in as {TEST_USER['email']}[/green]")
    return True


async def create_character(client):
    """Create the sample character and return it"""
    console.print("\n[bold blue]Creating character...[/bold blue]")

    response = await client.post("/api/characters", json=SAMPLE_CHARACTER)
    if response.status_code == 201:
        character = response.json()["character"]
        console.print(f"[green]✓ Character created! ID: {character['id']}[/green]")
        return character

    console.print(f"[red]✗ Failed to create character: {response.status_code} - {response.text}[/red]")
    return None


async def chat(client, character_id):
    """Send one message and print the streamed reply. Returns the conversation id."""
    console.print(f"\n[bold blue]Chatting: \"{CHAT_MESSAGE}\"[/bold blue]")

    conversation_id = None
    async with client.stream(
        "POST", "/api/chat", json={"message": CHAT_MESSAGE, "characterId": character_id}, timeout=120.0
    ) as response:
        if response.status_code != 200:
            await response.aread()
            console.print(f"[red]✗ Chat failed: {response.status_code} - {response.text}[/red]")
            return None

        async for line in response.aiter_lines():
            if not line.startswith("data: "):
                continue
            frame = json.loads(line[len("data: "):])
            if "text" in frame:
                console.print(frame["text"], end="")
            if frame.get("done"):
                conversation_id = frame["conversationId"]

    console.print()
    if not conversation_id:
        console.print("[red]✗ Stream ended without a done frame[/red]")
        return None

    console.print(f"[green]✓ Reply complete! Conversation ID: {conversation_id}[/green]")
    return conversation_id


async def show_messages(client, conversation_id):
    """List the stored messages of the conversation"""
    console.print("\n[bold blue]Retrieving stored messages...[/bold blue]")

    response = await client.get(f"/api/chat/{conversation_id}/messages")
    if response.status_code != 200:
        console.print(f"[red]✗ Failed to retrieve messages: {response.status_code} - {response.text}[/red]")
        return False

    messages = response.json()["messages"]
    table = Table(title="Stored Messages")
    table.add_column("ID", style="magenta", justify="right")
    table.add_column("Role", style="green")
    table.add_column("Content", style="cyan")
    for message in messages:
        table.add_row(str(message["id"]), message["role"], message["content"])
    console.print(table)

    return len(messages) == 2


async def show_usage(client):
    console.print("\n[bold blue]Checking today's usage...[/bold blue]")

    response = await client.get("/api/usage")
    if response.status_code != 200:
        console.print(f"[red]✗ Failed to read usage: {response.status_code} - {response.text}[/red]")
        return False

    table = Table(title="Usage (KST day)")
    table.add_column("Model", style="cyan")
    table.add_column("Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Remaining", style="green", justify="right")
    for model, usage in response.json()["usage"].items():
        table.add_row(model, str(usage["used"]), str(usage["limit"]), str(usage["remaining"]))
    console.print(table)
    return True


async def cleanup(client):
    """Delete the throwaway account and everything it owns"""
    response = await client.delete("/api/auth/account")
    if response.status_code == 200:
        console.print("[dim]Test account deleted[/dim]")
    else:
        console.print(f"[yellow]! Could not delete test account: {response.status_code}[/yellow]")


async def run_sanity_check():
    """Run the full sanity check flow"""
    console.print("[bold yellow]=== Kirakira Backend Sanity Check ===[/bold yellow]")
    console.print(f"API URL: {API_URL}")
    console.print(f"Run ID: {run_id}")

    async with httpx.AsyncClient(base_url=API_URL) as client:
        # Step 1: Check API health
        if not await check_health(client):
            console.print("[bold red]Sanity check failed: API is not healthy![/bold red]")
            return False

        # Step 2: Register and log in
        if not await register_and_login(client):
            console.print("[bold red]Sanity check failed: Couldn't log in![/bold red]")
            return False

        try:
            # Step 3: Create a character
            character = await create_character(client)
            if not character:
                console.print("[bold red]Sanity check failed: Couldn't create character![/bold red]")
                return False

            # Step 4: Chat
            conversation_id = await chat(client, character["id"])
            if not conversation_id:
                console.print("[bold red]Sanity check failed: Chat did not complete![/bold red]")
                return False

            # Step 5: Verify the turn was stored
            if not await show_messages(client, conversation_id):
                console.print("[bold red]Sanity check failed: Messages were not stored![/bold red]")
                return False

            if not await show_usage(client):
                console.print("[bold yellow]Warning: Usage check failed, but continuing...[/bold yellow]")
        finally:
            await cleanup(client)

    # All steps passed!
    console.print("\n[bold green]=== Sanity Check Passed! ===[/bold green]")
    console.print("All features are working as expected.")
    return True


if __name__ == "__main__":
    result = asyncio.run(run_sanity_check())
    sys.exit(0 if result else 1)
