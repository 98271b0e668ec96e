"""
shoplist - console client for the shared shopping list.

Usage examples:
  shoplist --email me@example.com --password secret list
  shoplist --email me@example.com --password secret add "Milk" --quantity "2 L"
  shoplist --email me@example.com --password secret toggle 12
  shoplist --email me@example.com --password secret delete 12
  shoplist --email me@example.com --password secret products --search tea --category Drinks
  shoplist --email me@example.com --password secret watch
  shoplist --env-file .env.dev signup --email new@example.com --password secret

Flags:
  --env-file PATH
    Load environment variables from PATH before connecting.
  --api-url URL
    Service base URL (default: SHOPLIST_API_URL or http://localhost:8000).
  --email / --password
    Credentials; fall back to SHOPLIST_EMAIL / SHOPLIST_PASSWORD.
"""
import argparse
import asyncio
import logging
import os
import sys
from typing import List, Sequence

from dotenv import load_dotenv
from tabulate import tabulate

from app.client.api import BackendClient, BackendError
from app.client.config import SyncSettings
from app.core.logging import setup_client_logging
from app.views.auth_gate import AuthGate
from app.views.catalog import CatalogView, FormatPrice
from app.views.online_users import OnlineUsersView
from app.views.shopping_list import ShoppingListView

logger = logging.getLogger("client.cli")

WATCH_REFRESH_SECONDS = 1.0


def LoadEnvFile(EnvPath: str) -> None:
    if not EnvPath:
        return
    if not os.path.exists(EnvPath):
        raise RuntimeError(f"Env file not found: {EnvPath}")
    load_dotenv(dotenv_path=EnvPath)


def PrintTable(Headers: List[str], Rows: Sequence[Sequence[object]]) -> None:
    if not Rows:
        print("(empty)")
        return
    print(tabulate(Rows, headers=Headers, tablefmt="github"))


def PrintItems(View: ShoppingListView) -> None:
    Rows = []
    for Item in View.Items:
        Rows.append(
            [
                Item.Id,
                "x" if Item.Completed else "",
                Item.Item,
                Item.Quantity,
                Item.OwnerEmail or "",
                Item.CreatedAt.astimezone().strftime("%Y-%m-%d %H:%M"),
            ]
        )
    PrintTable(["Id", "Done", "Item", "Quantity", "Added by", "Added"], Rows)


def PrintOnline(View: OnlineUsersView) -> None:
    Rows = [[User.Email + (" (you)" if User.IsCurrentUser else ""), User.OnlineAt.astimezone().strftime("%H:%M:%S")] for User in View.Users]
    PrintTable(["Online", "Since"], Rows)


def ParseArgs(Argv: Sequence[str] | None = None) -> argparse.Namespace:
    Parser = argparse.ArgumentParser(description="Shared shopping list console client.")
    Parser.add_argument("--env-file", help="Load environment variables from this file first.")
    Parser.add_argument("--api-url", help="Service base URL.")
    Parser.add_argument("--email", help="Account email.")
    Parser.add_argument("--password", help="Account password.")
    Commands = Parser.add_subparsers(dest="command", required=True)

    Commands.add_parser("signup", help="Create an account with --email/--password.")
    Commands.add_parser("list", help="Print the shopping list.")
    AddParser = Commands.add_parser("add", help="Add an item.")
    AddParser.add_argument("item")
    AddParser.add_argument("--quantity", default="")
    ToggleParser = Commands.add_parser("toggle", help="Toggle an item's completion.")
    ToggleParser.add_argument("item_id", type=int)
    DeleteParser = Commands.add_parser("delete", help="Delete one of your items.")
    DeleteParser.add_argument("item_id", type=int)
    ProductsParser = Commands.add_parser("products", help="Print the product catalog.")
    ProductsParser.add_argument("--search", default="")
    ProductsParser.add_argument("--category", default="")
    Commands.add_parser("watch", help="Follow the list and online users live until interrupted.")
    return Parser.parse_args(Argv)


async def _Watch(Client: BackendClient, Settings: SyncSettings, User) -> None:
    ListView = ShoppingListView(Client, User, settings=Settings)
    Online = OnlineUsersView(Client, User, settings=Settings)
    await ListView.Mount()
    await Online.Mount()
    LastSeen = None
    try:
        while True:
            Stamp = (ListView.LastUpdate, Online.LastUpdate)
            if Stamp != LastSeen:
                LastSeen = Stamp
                PrintItems(ListView)
                PrintOnline(Online)
                print()
            await asyncio.sleep(WATCH_REFRESH_SECONDS)
    finally:
        await Online.Unmount()
        await ListView.Unmount()


async def RunCommand(Args: argparse.Namespace, Client: BackendClient) -> int:
    Settings = SyncSettings.FromEnv()
    Email = Args.email or os.getenv("SHOPLIST_EMAIL", "")
    Password = Args.password or os.getenv("SHOPLIST_PASSWORD", "")
    Gate = AuthGate(Client)

    if Args.command == "signup":
        Gate.Toggle()
        Succeeded = await Gate.Submit(Email, Password)
        print(Gate.Message)
        return 0 if Succeeded else 1

    if not await Gate.Submit(Email, Password):
        print(Gate.Message, file=sys.stderr)
        return 1
    User = Client.User

    if Args.command == "products":
        Catalog = CatalogView(Client, User, settings=Settings)
        await Catalog.Load()
        Catalog.SetSearch(Args.search)
        Catalog.SetCategory(Args.category)
        Rows = [
            [Product.Id, Product.Name, FormatPrice(Product.Price), Product.Category or "", Product.Description or ""]
            for Product in Catalog.FilteredProducts
        ]
        PrintTable(["Id", "Name", "Price", "Category", "Description"], Rows)
        return 0

    if Args.command == "watch":
        await _Watch(Client, Settings, User)
        return 0

    View = ShoppingListView(Client, User, settings=Settings)
    await View.Load()
    if Args.command == "add":
        if await View.AddItem(Args.item, Args.quantity) is None:
            return 1
    elif Args.command == "toggle":
        if await View.ToggleItem(Args.item_id) is None:
            print(f"Could not toggle item {Args.item_id}", file=sys.stderr)
            return 1
    elif Args.command == "delete":
        if not await View.DeleteItem(Args.item_id):
            print(f"Could not delete item {Args.item_id}", file=sys.stderr)
            return 1
    PrintItems(View)
    return 0


async def _Main(Args: argparse.Namespace) -> int:
    Client = BackendClient(base_url=Args.api_url, join_timeout=SyncSettings.FromEnv().JoinTimeout)
    try:
        return await RunCommand(Args, Client)
    finally:
        await Client.SignOut()
        await Client.aclose()


def Main(Argv: Sequence[str] | None = None) -> int:
    Args = ParseArgs(Argv)
    try:
        LoadEnvFile(Args.env_file)
    except RuntimeError as Exc:
        print(str(Exc), file=sys.stderr)
        return 2
    setup_client_logging()
    try:
        return asyncio.run(_Main(Args))
    except KeyboardInterrupt:
        return 130
    except BackendError as Exc:
        logger.error("request failed: %s", Exc.Message)
        return 1


if __name__ == "__main__":
    raise SystemExit(Main())
