import uvicorn
import os

if __name__ == "__main__":
    if not os.environ.get("RULE_HISTORY_DB") and not os.environ.get("RULE_HISTORY_BASE_URL"):
        os.environ["RULE_HISTORY_DB"] = "rules.db"

    print("Starting Rule History API Server...")
    print(f"Rules database: {os.environ.get('RULE_HISTORY_DB') or os.environ.get('RULE_HISTORY_BASE_URL')}")
    print("Docs available at: http://localhost:8000/docs")

    uvicorn.run(
        "rule_history.api.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
