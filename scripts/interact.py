#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
DeResearcher 交互脚本
在本地构造并签名交易，通过 HTTP API 提交到账本
"""

import json
import os
import sys
import time

import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from deresearcher import sdk  # noqa: E402
from deresearcher.auth import Keypair  # noqa: E402
from deresearcher.errors import error_from_code  # noqa: E402
from deresearcher.ledger import Transaction  # noqa: E402

BASE_URL = os.environ.get("DERES_API_URL", "http://127.0.0.1:8097/")

# 数据文件路径
DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'data')
KEYS_FILE = os.path.join(DATA_DIR, 'researcher_keys.json')

os.makedirs(DATA_DIR, exist_ok=True)

# 名称 -> base64 私钥
saved_keys = {}


def load_keys():
    global saved_keys
    try:
        if os.path.exists(KEYS_FILE):
            with open(KEYS_FILE, 'r') as f:
                saved_keys = json.load(f).get('keys', {})
                print(f"已加载 {len(saved_keys)} 个本地密钥")
    except (OSError, ValueError) as e:
        print(f"加载本地密钥时出错: {str(e)}")
        saved_keys = {}


def save_keys():
    data = {'keys': saved_keys, 'last_updated': int(time.time())}
    with open(KEYS_FILE, 'w') as f:
        json.dump(data, f, indent=2)


def get_config():
    response = requests.get(f"{BASE_URL}config")
    response.raise_for_status()
    return response.json()


def get_keypair(name):
    """按名称取出本地密钥，不存在时生成并充值"""
    if name in saved_keys:
        return Keypair.from_base64(saved_keys[name])
    keys = requests.post(f"{BASE_URL}auth/generate-keys").json()
    saved_keys[name] = keys['private_key']
    save_keys()
    keypair = Keypair.from_base64(keys['private_key'])
    requests.post(
        f"{BASE_URL}accounts/{keypair.public_key.hex()}/airdrop",
        json={'lamports': 10_000_000_000},
    )
    print(f"创建新账户 {name}: {keypair.public_key.hex()}")
    return keypair


def submit(ix, *signers):
    """签名并提交单条指令"""
    blockhash = requests.get(f"{BASE_URL}blockhash").json()['blockhash']
    tx = Transaction([ix], bytes.fromhex(blockhash)).sign(*signers)
    response = requests.post(f"{BASE_URL}transactions", json=sdk.transaction_to_json(tx))
    if response.status_code == 200:
        print("交易成功")
        return True
    error = response.json().get('error') or response.json()
    if isinstance(error.get('code'), int):
        # 程序错误：按错误码还原
        program_error = error_from_code(error['code'], error.get('detail'))
        print(f"交易失败 [{program_error.code.name}]: {program_error}")
    else:
        print(f"交易失败: {json.dumps(error, indent=2, ensure_ascii=False)}")
    return False


def show(path):
    response = requests.get(f"{BASE_URL}{path}")
    print(json.dumps(response.json(), indent=2, ensure_ascii=False))


def create_profile(program_id):
    name = input("请输入账户名称: ")
    display_name = input("请输入研究者姓名: ")
    owner = get_keypair(name)
    submit(sdk.create_researcher_profile(program_id, owner.public_key, display_name), owner)


def assign_reputation(program_id):
    authority = Keypair.from_base64(input("请输入声誉预言机私钥(base64): "))
    owner = get_keypair(input("请输入研究者账户名称: "))
    reputation = int(input("请输入声誉值 (0-100): "))
    ix = sdk.check_and_assign_reputation(program_id, authority.public_key, owner.public_key, reputation)
    submit(ix, authority)


def create_paper(program_id):
    creator = get_keypair(input("请输入作者账户名称: "))
    content_hash = input("请输入论文内容哈希 (例如: QmPaper123): ")
    access_fee = int(input("请输入访问费用: "))
    ix = sdk.create_research_paper(program_id, creator.public_key, content_hash, access_fee)
    if submit(ix, creator):
        print(f"论文地址: {ix.accounts[2].pubkey.hex()}")


def add_review(program_id):
    reviewer = get_keypair(input("请输入评审者账户名称: "))
    paper = bytes.fromhex(input("请输入论文地址: "))
    scores = tuple(
        int(input(f"{label} (0-100): "))
        for label in ("研究质量", "应用潜力", "领域知识", "结果实用性")
    )
    submit(sdk.add_peer_review(program_id, reviewer.public_key, paper, scores), reviewer)


def publish(program_id):
    creator = get_keypair(input("请输入作者账户名称: "))
    paper = bytes.fromhex(input("请输入论文地址: "))
    submit(sdk.publish_paper(program_id, creator.public_key, paper), creator)


def get_access(program_id):
    reader = get_keypair(input("请输入读者账户名称: "))
    paper = bytes.fromhex(input("请输入论文地址: "))
    creator = requests.get(f"{BASE_URL}papers/{paper.hex()}").json().get('creator')
    if not creator:
        print("错误：论文不存在")
        return
    ix = sdk.get_access_to_paper(program_id, reader.public_key, paper, bytes.fromhex(creator))
    submit(ix, reader)


def main():
    load_keys()
    try:
        program_id = bytes.fromhex(get_config()['program_id'])
    except requests.RequestException as e:
        print(f"未能连接到 API: {str(e)}")
        return

    while True:
        print("\nDeResearcher 交互脚本")
        print("====================")
        print("1. 创建研究者档案")
        print("2. 分配声誉")
        print("3. 创建论文")
        print("4. 添加同行评审")
        print("5. 发布论文")
        print("6. 获取论文访问权限")
        print("7. 查询研究者档案")
        print("8. 查询论文")
        print("0. 退出")

        choice = input("请选择操作: ")
        try:
            if choice == '1':
                create_profile(program_id)
            elif choice == '2':
                assign_reputation(program_id)
            elif choice == '3':
                create_paper(program_id)
            elif choice == '4':
                add_review(program_id)
            elif choice == '5':
                publish(program_id)
            elif choice == '6':
                get_access(program_id)
            elif choice == '7':
                owner = get_keypair(input("请输入账户名称: "))
                show(f"profiles/by-owner/{owner.public_key.hex()}")
            elif choice == '8':
                show(f"papers/{input('请输入论文地址: ')}")
            elif choice == '0':
                print("退出程序")
                return
            else:
                print("无效选择")
        except (ValueError, requests.RequestException) as e:
            print(f"操作出错: {str(e)}")


if __name__ == "__main__":
    main()
