from coachtrack.ui.telegram.main import run

if __name__ == "__main__":
    run()
