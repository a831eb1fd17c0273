from .app import JDueApplication


def main():
	app = JDueApplication()
	app.run()


if __name__ == "__main__":
	main()
