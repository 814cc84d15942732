from ondevice_openai.server import main

if __name__ == "__main__":
    main()
