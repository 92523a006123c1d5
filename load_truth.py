#!/usr/bin/env python3
"""Load the Truth document (plus optional secrets overlay) into Redis for SetupBase."""
import os, sys, json, time, argparse, redis

def read_json_file(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        sys.exit(f"ERROR: file not found: {path}")
    except json.JSONDecodeError as e:
        sys.exit(f"ERROR: invalid JSON in {path}: {e}")

def merge(a: dict, b: dict) -> dict:
    """Recursive overlay of b onto a; secrets only ever add or replace leaf values."""
    out = dict(a or {})
    for k, v in (b or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = merge(out[k], v)
        else:
            out[k] = v
    return out

def publish(r, key: str, truth: dict) -> None:
    pipe = r.pipeline()
    pipe.set(key, json.dumps(truth, separators=(",", ":")))
    pipe.set(f"{key}:version", str(truth.get("version", "")))
    pipe.set(f"{key}:ts", str(int(time.time())))
    pipe.execute()

def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Load merged truth into Redis (single key).")
    p.add_argument("--redis-url",
                   default=os.getenv("TRUTH_REDIS_URL", "redis://127.0.0.1:6379"))
    p.add_argument("--truth",   default=os.getenv("TRUTH_FILE", "root/truth.json"))
    p.add_argument("--secrets", default=os.getenv("TRUTH_SECRETS_FILE"))
    p.add_argument("--key",     default=os.getenv("TRUTH_REDIS_KEY", "truth"))
    args = p.parse_args(argv)

    base = read_json_file(args.truth)
    if args.secrets:
        if os.path.exists(args.secrets):
            base = merge(base, read_json_file(args.secrets))
        else:
            sys.exit(f"ERROR: secrets file not found: {args.secrets}")

    r = redis.Redis.from_url(args.redis_url, decode_responses=True)
    publish(r, args.key, base)

    print(f"Loaded truth into {args.key} at {args.redis_url}")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
