import os
import sys
import pathlib
from dotenv import load_dotenv

ROOT = pathlib.Path(__file__).parent
ENV_FILE = ROOT / ".env"

load_dotenv(ENV_FILE)

RESET = "\033[0m"
BOLD = "\033[1m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
CYAN = "\033[96m"
RED = "\033[91m"


def check_env() -> bool:
    if os.getenv("WORD_STORE_URL") or os.getenv("WORD_BANK_PATH"):
        return True
    print(f"{RED}Chưa thiết lập kho từ trong file .env{RESET}")
    print("Ví dụ nội dung .env:")
    print("WORD_STORE_URL=https://xxxx.supabase.co")
    print("WORD_STORE_KEY=eyJhbGciOi...")
    print("# hoặc kho JSON cục bộ: WORD_BANK_PATH=data/word_bank.json")
    print("OPENAI_API_KEY=sk-xxxx   # tùy chọn, để có báo cáo AI\n")
    return False


def main():
    print(f"\n{BOLD}{CYAN}KIỂM TRA VỐN TỪ TIẾNG NHẬT - CLI DEMO{RESET}")
    print("-" * 40)
    print("1. Bài kiểm tra thích ứng (streaming)")
    print("2. Bài kiểm tra cố định (100 / 200 / 500 câu)")
    print("3. Mô phỏng người học (kho từ tổng hợp)")
    print("0. Thoát")
    print("-" * 40)
    choice = input("Chọn chức năng (0-3): ").strip()
    if choice in ("1", "2"):
        if not check_env():
            sys.exit(1)
        from cli.run_vocab_test import run_vocab_test
        run_vocab_test("streaming" if choice == "1" else "batch")
    elif choice == "3":
        from cli.simulate_learners import run_simulation_cli
        run_simulation_cli()
    elif choice == "0":
        print(f"{GREEN}Tạm biệt!{RESET}")
        sys.exit(0)
    else:
        print(f"{YELLOW}Lựa chọn không hợp lệ, vui lòng nhập 0-3.{RESET}")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print(f"\n{RED}Đã dừng chương trình.{RESET}")
