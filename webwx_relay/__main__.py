from webwx_relay.watchers.wechat_watcher import main

main()
