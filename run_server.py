import uvicorn

from viss_backend.api.server import ServerConfig

if __name__ == "__main__":
    config = ServerConfig.from_env()

    print("Starting VISS Timeline API Server...")
    print(f"Docs available at: http://localhost:{config.port}/docs")

    uvicorn.run(
        "viss_backend.api.server:app",
        host=config.host,
        port=config.port,
        reload=config.reload
    )
