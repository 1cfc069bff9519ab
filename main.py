# -*- coding: utf-8 -*-
"""
Foodify 命令行入口：
  python main.py chat [--route /browse]
  python main.py cart show
  python main.py cart add <menu_item_id> [--quantity N] [--restaurant-id R --price P --name NAME]
  python main.py cart update <item_id> <quantity>
  python main.py cart remove <item_id>
  python main.py cart clear
"""
import argparse
import asyncio
import json
import sys

from assistant import ChatProvider, GeminiService, PlatformContextService
from cart import CartProvider, CartState
from core.api_client import ApiClient, CartApi, OrderApi, RestaurantApi
from core.config import get_settings
from core.errors import FoodifyError
from core.logging import setup_logging
from core.storage import CART_STORAGE_KEY, JsonFileStorage


def _print_cart(state: CartState) -> None:
    if state.is_empty:
        print("购物车为空。")
    for it in state.items:
        print(f"  [{it.id}] {it.name or it.menu_item_id} × {it.quantity}  Rs. {it.line_total}")
    print(f"小计 Rs. {state.subtotal}  运费 Rs. {state.delivery_fee}  合计 Rs. {state.total}")
    if state.error:
        print(f"（{state.error}）")


async def _run_cart(args, storage: JsonFileStorage) -> int:
    client = ApiClient(storage=storage)
    provider = CartProvider(CartApi(client), storage)
    try:
        await provider.mount()
        if args.action == "add":
            item_data = None
            if args.price is not None:
                item_data = {"restaurant_id": args.restaurant_id, "price": args.price, "name": args.name or ""}
            await provider.add_to_cart(args.menu_item_id, args.quantity, args.note, item_data)
        elif args.action == "update":
            await provider.update_quantity(args.item_id, args.quantity)
        elif args.action == "remove":
            await provider.remove_from_cart(args.item_id)
        elif args.action == "clear":
            await provider.clear_cart()
    except FoodifyError as e:
        print(e.message, file=sys.stderr)
        _print_cart(provider.state)
        return 1
    finally:
        await provider.aclose()
        await client.aclose()
    _print_cart(provider.state)
    return 0


async def _run_chat(args, storage: JsonFileStorage) -> int:
    client = ApiClient(storage=storage)
    context_service = PlatformContextService(
        storage,
        restaurant_api=RestaurantApi(client),
        order_api=OrderApi(client),
    )
    context_service.set_location(args.route)
    provider = ChatProvider(GeminiService(), context_service)
    await provider.mount()

    print("=" * 50)
    print(" Foodie - Foodify 点餐助手")
    print("=" * 50)
    print(provider.messages[0].text)
    print("输入 /clear 清空对话，/go <路由> 切换页面，/actions 查看快捷操作，q 退出。\n")

    try:
        while True:
            try:
                line = input("您: ").strip()
            except (EOFError, KeyboardInterrupt):
                break
            if not line:
                continue
            if line.lower() == "q":
                break
            if line == "/clear":
                provider.clear_conversation()
                print(f"\nFoodie: {provider.messages[0].text}\n")
                continue
            if line.startswith("/go "):
                await provider.navigate(line[4:].strip())
                print(f"（当前页面：{provider.platform_context.page.title}）\n")
                continue
            if line == "/actions":
                for i, a in enumerate(provider.quick_actions, 1):
                    print(f"  {i}. {a.label}")
                print()
                continue
            if line.startswith("/") and line[1:].isdigit():
                idx = int(line[1:]) - 1
                if 0 <= idx < len(provider.quick_actions):
                    reply = await provider.handle_quick_action(provider.quick_actions[idx])
                    if reply is not None:
                        print(f"\nFoodie: {reply.text}\n")
                continue

            reply = await provider.send_message(line)
            if reply is not None:
                print(f"\nFoodie: {reply.text}\n")
    finally:
        await provider.aclose()
        await client.aclose()
    print("再见！")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Foodify：购物车与 Foodie 聊天助手")
    sub = parser.add_subparsers(dest="command", required=True)

    chat_parser = sub.add_parser("chat", help="与 Foodie 连续对话")
    chat_parser.add_argument("--route", type=str, default="/", help="当前所在页面路由")

    cart_parser = sub.add_parser("cart", help="购物车操作")
    cart_sub = cart_parser.add_subparsers(dest="action", required=True)
    cart_sub.add_parser("show", help="显示购物车")
    add_parser = cart_sub.add_parser("add", help="加入菜品")
    add_parser.add_argument("menu_item_id", type=int)
    add_parser.add_argument("--quantity", type=int, default=1)
    add_parser.add_argument("--note", type=str, default="", help="特殊要求")
    add_parser.add_argument("--restaurant-id", type=int, default=None)
    add_parser.add_argument("--price", type=int, default=None)
    add_parser.add_argument("--name", type=str, default=None)
    update_parser = cart_sub.add_parser("update", help="修改数量（<=0 即移除）")
    update_parser.add_argument("item_id", type=str)
    update_parser.add_argument("quantity", type=int)
    remove_parser = cart_sub.add_parser("remove", help="移除商品")
    remove_parser.add_argument("item_id", type=str)
    cart_sub.add_parser("clear", help="清空购物车")

    parser.add_argument("--state", type=str, default=None, help="本地存储文件（默认 FOODIFY_STORAGE_PATH）")
    parser.add_argument("--json", action="store_true", help="以 JSON 输出购物车")

    args = parser.parse_args()
    settings = get_settings()
    setup_logging(settings.log_level)
    storage = JsonFileStorage(args.state or settings.storage_path)

    if args.command == "chat":
        return asyncio.run(_run_chat(args, storage))

    code = asyncio.run(_run_cart(args, storage))
    if args.json:
        print(json.dumps(json.loads(storage.get_item(CART_STORAGE_KEY) or "{}"), ensure_ascii=False, indent=2))
    return code


if __name__ == "__main__":
    sys.exit(main() or 0)
